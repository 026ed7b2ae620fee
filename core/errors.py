"""
Dossier Error Taxonomy
======================

- ParseError: a single field could not be read. Resolved locally to
  None/empty by the temporal helpers, never propagated by the core.
- ValidationError: the request cannot produce an artifact (empty field
  selection, empty date input, nothing to export). Surfaced to the caller
  as a user-facing message.
- SinkError: the spreadsheet writer or document renderer failed. Surfaced
  as-is, never retried.
- FetchError: a dossier source could not deliver the payload.
"""


class DossierError(Exception):
    """Base class for all dossier analytics errors"""


class ParseError(DossierError, ValueError):
    """A raw value could not be parsed"""


class ValidationError(DossierError, ValueError):
    """The request was rejected before any artifact was written"""


class EmptyFieldSelectionError(ValidationError):
    """No export fields were selected"""


class EmptyDateSelectionError(ValidationError):
    """No usable day was supplied for an evidence document"""


class NoMatchingRecordsError(ValidationError):
    """The selection is valid but no record matches it"""


class SinkError(DossierError):
    """An output sink failed while writing an artifact"""


class FetchError(DossierError):
    """The dossier endpoint could not be reached or answered an error"""
