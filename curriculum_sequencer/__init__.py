"""
Curriculum sequencing pipeline.

Turns an unordered pool of theory, question and task items into one
pedagogically ordered curriculum through resumable batch phases.
"""

__version__ = "0.1.0"
