"""
mutantgen - Mutation-guided unit test generation.

Draft tests with a language model, score them with mutation analysis,
improve them until they kill enough mutants.
"""

from mutantgen.batch import run_batch
from mutantgen.controller import FeedbackLoopController

__version__ = "0.1.0"
__all__ = ["FeedbackLoopController", "run_batch", "__version__"]
