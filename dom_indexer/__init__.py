from dom_indexer.browser.session import CDPSession
from dom_indexer.browser.views import BrowserError, PageInfo
from dom_indexer.config import CONFIG
from dom_indexer.dom.service import DomService, extract_dom
from dom_indexer.dom.views import (
	DOMExtractionResult,
	DOMRect,
	SelectOption,
	SelectorMap,
	SimplifiedElement,
)
from dom_indexer.exceptions import DOMExtractionError
from dom_indexer.logging_config import setup_logging

__all__ = [
	'CONFIG',
	'BrowserError',
	'CDPSession',
	'DOMExtractionError',
	'DOMExtractionResult',
	'DOMRect',
	'DomService',
	'PageInfo',
	'SelectOption',
	'SelectorMap',
	'SimplifiedElement',
	'extract_dom',
	'setup_logging',
]
