# lc3_sim/tools/trace_analyse.py
import sys
from collections import Counter

from lc3_sim.core.observe import read_trace


def analyze(path: str):
    ops = Counter()
    traps = Counter()
    anomalies = Counter()
    hot_pcs = Counter()
    aborted = None

    for ev in read_trace(path):
        ops[ev.get("op_name", "?")] += 1
        hot_pcs[ev.get("pc")] += 1
        if ev.get("trap"):
            traps[ev["trap"]] += 1
        if ev.get("state") == "aborted":
            aborted = ev.get("error")
        for a in ev.get("anomalies") or []:
            anomalies[a] += 1

    print("Top opcodes:", ops.most_common(10))
    print("Traps:", dict(traps))
    print("Hot addresses:", [(f"x{pc:04X}", n) for pc, n in hot_pcs.most_common(5) if pc is not None])
    print("Anomalies:", anomalies.most_common())
    if aborted:
        print("Aborted:", aborted)
    return {"ops": ops, "traps": traps, "anomalies": anomalies, "aborted": aborted}


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python -m lc3_sim.tools.trace_analyse <trace.jsonl>")
        sys.exit(2)
    analyze(sys.argv[1])
