"""
CLI Module - Typer commands for previewing, simulating and profiling.
"""
