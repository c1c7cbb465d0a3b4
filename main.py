"""
Entry point and facade for the page-stream document pipeline.

Packages:
- pagestream.net: templated HTTP page fetcher (requests)
- pagestream.docs: bounded caches, page pipeline and the document facade
- pagestream.image: decoding, region extraction, gamma, foreign bitmaps
- pagestream.render: drawing pages into canvases
- pagestream.ocr: text engine interface and Tesseract engine
- pagestream.pipeline: page export and OCR over page ranges
"""

from __future__ import annotations

import logging

from pagestream.config import configure_dependencies, load_config
from pagestream.docs.document import PageStreamDocument
from pagestream.errors import InitializationError
from pagestream.image.processing import Rect, extract_region, to_foreign_bitmap
from pagestream.ocr.reader import TesseractTextEngine
from pagestream.pipeline.process import export_pages, ocr_pages, parse_page_range

__all__ = [
    "PageStreamDocument",
    "Rect",
    "TesseractTextEngine",
    "configure_dependencies",
    "export_pages",
    "extract_region",
    "load_config",
    "ocr_pages",
    "to_foreign_bitmap",
]


def _cli() -> None:
    """CLI for page export and OCR of a page-stream document.

    --file / -f: Page-stream description file (key=value lines)
    --pages / -p: Page selection like "1,3-5" (default: all pages)
    --out-dir / -o: Directory for exported PNG pages (default: pages)
    --zoom: Zoom factor (default: 1.0)
    --gamma: Gamma correction (default: none)
    --width: Display width substituted into the URL (default: 1072)
    --ocr: Print recognized text instead of exporting images
    --lang: Tesseract languages (default: eng)
    --verbose / -v: Debug logging
    """
    import argparse

    parser = argparse.ArgumentParser(description="Export or OCR pages of a remote page-stream document.")
    parser.add_argument("--file", "-f", type=str, required=True, help="Path to the page-stream description file")
    parser.add_argument("--pages", "-p", type=str, default=None, help="Pages to process, e.g. '1,3-5' (default: all)")
    parser.add_argument("--out-dir", "-o", type=str, default="pages", help="Output directory for PNG pages (default: pages)")
    parser.add_argument("--zoom", type=float, default=1.0, help="Zoom factor (default: 1.0)")
    parser.add_argument("--gamma", type=float, default=None, help="Gamma correction applied to rendered pages")
    parser.add_argument("--width", type=int, default=1072, help="Display width requested from the server (default: 1072)")
    parser.add_argument("--ocr", action="store_true", help="Print recognized text instead of exporting images")
    parser.add_argument("--lang", type=str, default="eng", help="Tesseract languages (default: eng)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    configure_dependencies()

    doc = PageStreamDocument(
        args.file,
        text_engine=TesseractTextEngine(lang=args.lang) if args.ocr else None,
        display_width=args.width,
        remove_source_on_close=False,
    )
    try:
        doc.open()
    except InitializationError as e:
        print(str(e))
        raise SystemExit(2)

    try:
        try:
            pages = parse_page_range(args.pages, doc.get_pages())
        except ValueError as e:
            print(str(e))
            raise SystemExit(2)

        if args.ocr:
            for pageno, text in ocr_pages(doc, pages, zoom=args.zoom).items():
                print(f"--- page {pageno} ---")
                print(text)
            return

        written = export_pages(doc, args.out_dir, pages, zoom=args.zoom, gamma=args.gamma)
        print(f"Exported {len(written)} of {len(pages)} pages to: {args.out_dir}")
    finally:
        doc.close()


if __name__ == "__main__":
    _cli()
