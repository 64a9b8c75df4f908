"""Exception types raised by IGWAS.

All structural errors derive from ``IGWASError``, itself a ``ValueError``, so
callers that already catch ``ValueError`` around input validation keep working.
"""


class IGWASError(ValueError):
    """Base class for IGWAS input and aggregation errors."""


class ShapeMismatch(IGWASError):
    """Matrix or chunk dimensions disagree."""


class LabelMismatch(IGWASError):
    """Projection and covariance phenotype labels differ, or a label is unknown."""


class MissingPhenotypeSource(IGWASError):
    """A phenotype in the matrices has no summary-statistic file."""


class DuplicatePhenotypeSource(IGWASError):
    """More than one summary-statistic source was supplied for a phenotype."""


class MismatchedVariantIds(IGWASError):
    """A phenotype chunk's variant IDs differ from the window's canonical IDs."""


class IncompleteAggregation(IGWASError):
    """Finalize was requested before every phenotype contributed to the window."""


class RowCountMismatch(IGWASError):
    """Summary-statistic files do not all have the same number of variants."""


class PhenotypeReadError(IGWASError):
    """Reading a window from a summary-statistic file failed.

    Attributes:
        path: The offending file.
    """

    def __init__(self, message: str, path: object = None) -> None:
        super().__init__(message)
        self.path = path
