"""Exceptions httpx can raise while building or sending a request."""

import httpx

# InvalidURL is not an HTTPError; a non-ASCII header value raises UnicodeEncodeError.
REQUEST_ERRORS: tuple[type[Exception], ...] = (httpx.HTTPError, httpx.InvalidURL, ValueError)
