from typing import Any

from pydantic import BaseModel


class PageInfo(BaseModel):
	"""URL and title of the page an extraction ran against"""

	url: str = ''
	title: str = ''


class BrowserError(Exception):
	"""Base class for all browser errors"""

	message: str
	details: dict[str, Any] | None = None

	def __init__(self, message: str, details: dict[str, Any] | None = None):
		self.message = message
		super().__init__(message)
		self.details = details

	def __str__(self) -> str:
		if self.details:
			return f'{self.message} ({self.details})'
		return self.message
