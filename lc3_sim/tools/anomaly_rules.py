# tools/anomaly_rules.py
USER_SPACE_START = 0x3000
USER_SPACE_END = 0xFE00  # device register page starts here

def rule_self_branch(event):
    # BR/JMP back onto itself: the usual idle loop
    return ["self_branch"] if event.get("pc_next") == event.get("pc") else []

def rule_pc_outside_user_space(event):
    pc = event.get("pc")
    if pc is None: return []
    return ["pc_outside_user_space"] if not (USER_SPACE_START <= pc < USER_SPACE_END) else []

def rule_kbsr_busy_poll(state, max_polls=10000):
    """
    Build a rule that flags long runs of keyboard status polls.
    'state' is a dict you hold outside to accumulate the current run length.
    """
    def rule(event):
        if event.get("kbsr_poll"):
            state["kbsr_run"] = 1 + state.get("kbsr_run", 0)
            if state["kbsr_run"] > max_polls:
                return ["kbsr_busy_poll"]
        elif event.get("op_name") in ("LDI", "LD", "LDR"):
            state["kbsr_run"] = 0
        return []
    return rule
