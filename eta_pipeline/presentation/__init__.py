"""Consumer payload assembly."""
from .presenter import Presenter, StaticSummaryLookup, SummaryLookup, to_camel_dict

__all__ = ["Presenter", "StaticSummaryLookup", "SummaryLookup", "to_camel_dict"]
