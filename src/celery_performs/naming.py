"""Naming conventions for generated jobs and enqueue methods.

A method name may end in ``!`` or ``?`` (``publish!``). The suffix is
stripped to build the job class name and re-attached to the generated
methods, which therefore have to be reached with ``getattr``::

    strip_suffix("publish!")         # ("publish", "!")
    job_class_name("publish")        # "PublishJob"
    later_name("publish", "!")       # "publish_later!"
    bulk_name("publish", "!")        # "publish_later_bulk!"
"""

from typing import Callable

SUFFIXES = "!?"
BASE_JOB_NAME = "Job"

NamingPolicy = Callable[[str], tuple[str, str]]


def strip_suffix(name: str) -> tuple[str, str]:
    """Split ``name`` into its normalized form and trailing ``!``/``?`` suffix.

    Only the last character is removed, so ``"ok?!"`` keeps ``"ok?"``.

    Raises:
        ValueError: If nothing is left once the suffix is removed.
    """
    suffix = name[-1:] if name[-1:] and name[-1:] in SUFFIXES else ""
    normalized = name[: len(name) - len(suffix)]
    if not normalized:
        raise ValueError(f"Invalid method name: {name!r}")
    return normalized, suffix


def identity(name: str) -> tuple[str, str]:
    """Naming policy that keeps method names as they are."""
    if not name:
        raise ValueError("Invalid method name: ''")
    return name, ""


def job_class_name(normalized: str) -> str:
    # _private_method -> PrivateMethodJob
    return "".join(part[:1].upper() + part[1:] for part in normalized.split("_") if part) + BASE_JOB_NAME


def later_name(normalized: str, suffix: str = "") -> str:
    return f"{normalized}_later{suffix}"


def bulk_name(normalized: str, suffix: str = "") -> str:
    return f"{normalized}_later_bulk{suffix}"
