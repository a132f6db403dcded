from __future__ import annotations

import sys
from typing import TextIO

from preflight.executor import RunContext

SUMMARY_RULE = "================================"
LOG_RULE = "--------------------------------"


def summarize(context: RunContext, out: TextIO | None = None) -> int:
    """Print the run summary and return the process exit code."""
    out = out or sys.stdout
    results = dict(context.results)
    names = [task.name for task in context.tasks()]
    names += [name for name in results if name not in names]

    succeeded = [n for n in names if n in results and results[n].succeeded]
    failed = [n for n in names if n in results and results[n].failed]
    skipped = [n for n in names if n not in results]

    print(file=out)
    print("📊 PREFLIGHT SUMMARY", file=out)
    print(SUMMARY_RULE, file=out)

    for name in succeeded:
        print(f"✅ SUCCESS: {name}", file=out)

    for name in failed:
        result = results[name]
        print(f"❌ FAILURE: {name} (Exit: {result.exit_code})", file=out)
        if result.log_path is not None and result.log_path.is_file():
            print(f"--- Log for {name} ---", file=out)
            log = result.log_path.read_text(encoding="utf-8", errors="replace")
            if log and not log.endswith("\n"):
                log += "\n"
            out.write(log)
            print(LOG_RULE, file=out)

    for name in skipped:
        print(f"⏭️  SKIPPED: {name}", file=out)

    print(file=out)
    print(f"📈 Results: {len(succeeded)} passed, {len(failed)} failed", file=out)

    if len(failed) == 0:
        print("All preflight checks passed! ✅", file=out)
        return 0

    print("Preflight checks failed ❌", file=out)
    return 1
