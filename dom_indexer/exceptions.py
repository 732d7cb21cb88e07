class DOMExtractionError(Exception):
	"""Raised when the mandatory document tree cannot be fetched."""

	def __init__(self, message: str, cause: BaseException | None = None):
		self.message = message
		self.cause = cause
		super().__init__(f'{message}: {cause}' if cause else message)
