# utils.py
from macro_summarizer import recursive_functions
from syntax_model import MacroSummary


def explain_summary(summary: MacroSummary) -> dict:
    """
    Generate human-readable explanations for each function of a macro summary.

    Args:
        summary (MacroSummary): output of ``MacroSummarizer.summarize``

    Returns:
        dict: {function_name: explanation_string}
    """
    explanations = {}
    recursive = set(recursive_functions(summary))
    callees = {}
    for call in summary.call_graph:
        callees.setdefault(call.caller, [])
        if call.callee not in callees[call.caller]:
            callees[call.caller].append(call.callee)

    for fn in summary.functions:
        cc = fn.complexity

        # Heuristic interpretation
        if cc <= 5:
            cc_text = "low (easy to understand)"
        elif cc <= 10:
            cc_text = "moderate (some branching)"
        else:
            cc_text = "high (complex, consider refactoring)"

        if fn.has_loops and fn.has_conditionals:
            shape_text = "loops and conditional branches"
        elif fn.has_loops:
            shape_text = "loops but no conditional branches"
        elif fn.has_conditionals:
            shape_text = "conditional branches but no loops"
        else:
            shape_text = "straight-line code only"

        explanation = (
            f"Function `{fn.name}()` has complexity **{cc}** ({cc_text}), "
            f"contains {shape_text}, and spans **{fn.line_count}** lines."
        )

        called = callees.get(fn.name)
        if called:
            explanation += f" It calls {', '.join(called[:5])}."
        if fn.name in recursive:
            explanation += " It is recursive (directly or through other functions)."

        # Optional: add quick readability tip
        if cc > 12 or fn.line_count > 60:
            explanation += " ⚠️ This function may be hard to maintain."

        explanations[fn.name] = explanation

    return explanations
