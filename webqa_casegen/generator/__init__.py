from .synthesizer import (TestCaseSynthesizer, synthesize_first,
                          synthesize_full, synthesize_incremental)

__all__ = ["TestCaseSynthesizer", "synthesize_first", "synthesize_full", "synthesize_incremental"]
