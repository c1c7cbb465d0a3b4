"""Page-stream document layer.

Exposes:
- Data model: Page, DocumentProps
- Bounded caches: BoundedPageCache (raw page bytes, page sizes)
- Pipeline state: PageStreamState
- Facade: PageStreamDocument
"""

from .cache import BoundedPageCache
from .model import DocumentProps, Page
from .pipeline import PageStreamState
from .document import DocumentState, PageStreamDocument

__all__ = [
    "BoundedPageCache",
    "DocumentProps",
    "DocumentState",
    "Page",
    "PageStreamDocument",
    "PageStreamState",
]
