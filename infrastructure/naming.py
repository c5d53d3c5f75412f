import hashlib
import re

_INVALID = re.compile(r"[^a-z0-9-]+")


def physical_name(stack_name: str, logical_id: str, max_length: int = 63) -> str:
    """
    Derive a stable physical resource name from the stack and logical id.

    The result is lowercase, hyphen separated and always ends with the first
    8 hex digits of sha256("<stack>/<logical_id>"), so the same inputs give
    the same name on every run.
    """
    digest = hashlib.sha256(f"{stack_name}/{logical_id}".encode()).hexdigest()[:8]
    base = _INVALID.sub("-", f"{stack_name}-{logical_id}".lower()).strip("-")
    # keep room for "-" + digest
    base = base[: max_length - 9].rstrip("-")
    return f"{base}-{digest}"
