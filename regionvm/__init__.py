"""Stack-based virtual machine for region-structured intermediate programs.

Table loaders, an execution stack with static links, and an interpreter
for the abstract syntax trees of the regions.
"""

__version__ = "0.1.0"