"""
Evidence Distillation Layer

Reduces large policy, audit and procurement document sets to a small,
bounded set of traceable evidence cards for size-limited prompts.

Targets:
- DOC, IRS, HHS, DOI, USACE built-in profiles (extendable via JSON)
- eight mandatory themes tracked for coverage on every run
"""

__version__ = "0.1.0"
