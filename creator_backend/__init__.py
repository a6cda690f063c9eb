"""
CREator backend.

A small local HTTP service that writes generated workflow files into a
CRE orchestrator checkout, manages its private-key `.env`, and runs
`cre workflow simulate` on behalf of the CREator frontend.
"""

__version__ = "1.0.0"
