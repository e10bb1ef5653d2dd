"""vcpu Interactive Demo.

A Gradio web interface for running and visualizing virtual CPU execution.

Usage:
    cd /path/to/vcpu
    python demo/gradio_app.py

Features:
    - Edit or load integer-encoded example programs
    - Run to completion or step one instruction at a time
    - See the decoded instruction trace and register changes
    - Inspect flags, PRINT output and the start of memory
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import gradio as gr
from vcpu import Machine, EXAMPLE_PROGRAMS, parse_program
from vcpu.programs import format_program
from vcpu.state import DEFAULT_MEMORY_SIZE

DEFAULT_MAX_CYCLES = 10000


# =============================================================================
# Execution Functions
# =============================================================================

def format_trace(trace, limit=100):
    """Render trace entries as text, capped at limit entries."""
    entries = list(trace)
    lines = [
        "EXECUTION TRACE",
        "=" * 60,
    ]
    for entry in entries[:limit]:
        lines.append(f"\n--- Cycle {entry.cycle} (PC={entry.address}) ---")
        lines.append(f"Instruction: {entry.instruction}")
        if entry.error:
            lines.append(f"Error:       {entry.error}")

        pre_regs = entry.pre_state["registers"]
        post_regs = entry.post_state["registers"]
        changes = []
        for reg in pre_regs:
            if pre_regs[reg] != post_regs[reg]:
                changes.append(f"{reg}: {pre_regs[reg]} -> {post_regs[reg]}")
        if changes:
            lines.append(f"Changes:     {', '.join(changes)}")

    if len(entries) > limit:
        lines.append(f"\n... ({len(entries) - limit} more entries)")
    return "\n".join(lines)


def _as_int(value, default):
    """gr.Number yields None when the field is cleared."""
    return default if value is None else int(value)


def format_summary(cpu):
    summary = cpu.get_summary()
    lines = [
        "EXECUTION SUMMARY",
        "=" * 40,
        f"Cycles: {summary['cycles']}",
        f"Running: {'Yes' if summary['running'] else 'No'}",
        f"Output: {summary['output']}",
    ]
    if summary["halt_reason"]:
        lines.append(f"\nHalted: {summary['halt_reason']}")
    elif summary["running"] and cpu.max_cycles is not None and summary["cycles"] >= cpu.max_cycles:
        lines.append(f"\nStopped: max cycles ({cpu.max_cycles}) exceeded")
    return "\n".join(lines)


def run_program(source: str, memory_size: int, max_cycles: int) -> tuple:
    """Execute a program and return results.

    Args:
        source: Program as comma/space separated integers
        memory_size: Number of memory cells
        max_cycles: Maximum execution cycles

    Returns:
        Tuple of (summary_text, trace_text, state_text)
    """
    try:
        program = parse_program(source)
    except ValueError as e:
        return f"Error: {e}", "", ""

    try:
        cpu = Machine(
            memory_size=_as_int(memory_size, DEFAULT_MEMORY_SIZE),
            max_cycles=_as_int(max_cycles, DEFAULT_MAX_CYCLES)
        )
    except ValueError as e:
        return f"Error: {e}", "", ""
    cpu.load_program(program)
    cpu.run()

    return format_summary(cpu), format_trace(cpu.trace), cpu.format_state()


def start_stepping(source: str, memory_size: int):
    """Load a program for single stepping; the Machine lives in gr.State."""
    try:
        program = parse_program(source)
    except ValueError as e:
        return None, f"Error: {e}", "", ""

    try:
        cpu = Machine(memory_size=_as_int(memory_size, DEFAULT_MEMORY_SIZE))
    except ValueError as e:
        return None, f"Error: {e}", "", ""
    cpu.load_program(program)
    return cpu, format_summary(cpu), "", cpu.format_state()


def step_once(cpu):
    if cpu is None:
        return None, "Error: press Load first", "", ""
    cpu.step()
    return cpu, format_summary(cpu), format_trace(cpu.trace), cpu.format_state()


def load_example(example_name: str) -> str:
    """Load an example program."""
    return format_program(EXAMPLE_PROGRAMS.get(example_name, []))


# =============================================================================
# Gradio Interface
# =============================================================================

def create_demo():
    """Create and return the Gradio demo interface."""

    with gr.Blocks(title="vcpu Demo", theme=gr.themes.Soft()) as demo:
        gr.Markdown("""
        # vcpu: Minimal Virtual CPU

        Five registers, flat memory, twelve integer-encoded instructions.

        **Pipeline**: `fetch -> decode -> key -> registry execute -> state`
        """)

        machine_state = gr.State(None)

        with gr.Row():
            with gr.Column(scale=2):
                gr.Markdown("### Program")

                example_dropdown = gr.Dropdown(
                    choices=list(EXAMPLE_PROGRAMS.keys()),
                    value="factorial",
                    label="Load Example"
                )

                program_input = gr.Textbox(
                    value=format_program(EXAMPLE_PROGRAMS["factorial"]),
                    label="Integer Program",
                    lines=8,
                    placeholder="1, 0, 42, 11, 0, 12"
                )

                gr.Markdown("### Settings")

                with gr.Row():
                    memory_size = gr.Number(
                        value=DEFAULT_MEMORY_SIZE,
                        precision=0,
                        label="Memory Size"
                    )
                    max_cycles = gr.Slider(
                        minimum=100,
                        maximum=100000,
                        value=DEFAULT_MAX_CYCLES,
                        step=100,
                        label="Max Cycles"
                    )

                with gr.Row():
                    run_button = gr.Button("Run Program", variant="primary")
                    load_button = gr.Button("Load for Stepping")
                    step_button = gr.Button("Step")

            with gr.Column(scale=3):
                with gr.Row():
                    summary_output = gr.Textbox(
                        label="Summary",
                        lines=10,
                        interactive=False
                    )
                    state_output = gr.Textbox(
                        label="Machine State",
                        lines=10,
                        interactive=False
                    )

                trace_output = gr.Textbox(
                    label="Execution Trace",
                    lines=20,
                    interactive=False
                )

        with gr.Accordion("ISA Reference", open=False):
            gr.Markdown("""
            | Code | Instruction | Operands | Effect |
            |------|-------------|----------|--------|
            | 1 | `LOAD` | reg, value | reg := value |
            | 2 | `STORE` | reg, addr | memory[addr] := reg |
            | 3 | `ADD` | reg1, reg2 | reg1 += reg2, flags |
            | 4 | `SUB` | reg1, reg2 | reg1 -= reg2, flags |
            | 5 | `MUL` | reg1, reg2 | reg1 *= reg2, flags |
            | 6 | `DIV` | reg1, reg2 | reg1 /= reg2, flags; halts on zero |
            | 7 | `JMP` | addr | pc := addr |
            | 8 | `JEQ` | reg1, reg2, addr | jump if equal |
            | 9 | `JNE` | reg1, reg2, addr | jump if not equal |
            | 10 | `CMP` | reg1, reg2 | flags from reg1 - reg2 |
            | 11 | `PRINT` | reg | output reg |
            | 12 | `HALT` | | stop |

            **Register codes**: 0=AX 1=BX 2=CX 3=DX 4=SP (others read as AX)
            **Flags**: Zero (result == 0), Carry (result outside -32768..65535)
            """)

        example_dropdown.change(
            fn=load_example,
            inputs=[example_dropdown],
            outputs=[program_input]
        )

        run_button.click(
            fn=run_program,
            inputs=[program_input, memory_size, max_cycles],
            outputs=[summary_output, trace_output, state_output]
        )

        load_button.click(
            fn=start_stepping,
            inputs=[program_input, memory_size],
            outputs=[machine_state, summary_output, trace_output, state_output]
        )

        step_button.click(
            fn=step_once,
            inputs=[machine_state],
            outputs=[machine_state, summary_output, trace_output, state_output]
        )

    return demo


# =============================================================================
# Main
# =============================================================================

if __name__ == "__main__":
    demo = create_demo()
    demo.launch(
        share=False,
        server_name="0.0.0.0",
        server_port=7861,
        show_error=True
    )
