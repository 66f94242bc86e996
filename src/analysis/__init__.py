"""
Analysis of normalized ballot streams.

- SpectraMaker: places primary options between pairs of secondary options
- SecondPreferenceMatrix: where each primary option's second preferences went
"""

from .matrix import SecondPreferenceMatrix
from .spectrum import Spectrum, SpectraMaker, SpectrumParty

__all__ = [
    "SecondPreferenceMatrix",
    "Spectrum",
    "SpectraMaker",
    "SpectrumParty",
]
