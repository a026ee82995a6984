"""QA rule families and the project-level engine."""

from .engine import QAEngine, carry_ignore_state, run_qa
from .untranslatables import find_potential_untranslatables

__all__ = [
    'QAEngine',
    'run_qa',
    'carry_ignore_state',
    'find_potential_untranslatables',
]
