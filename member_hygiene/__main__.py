"""Dispatch ``python -m member_hygiene audit|fix`` to the job entry points."""

import sys

from .main import audit_main, fix_main

_JOBS = {"audit": audit_main, "fix": fix_main}


def _dispatch() -> int:
    if len(sys.argv) < 2 or sys.argv[1] not in _JOBS:
        print("Usage: python -m member_hygiene {audit|fix} [options]", file=sys.stderr)
        return 2
    return _JOBS[sys.argv[1]](sys.argv[2:])


if __name__ == "__main__":
    sys.exit(_dispatch())
