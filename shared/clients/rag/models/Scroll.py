from pydantic import BaseModel


class ScrollResult(BaseModel):
    """Structured output of a single scroll page.

    Attributes:
        result:           List of point dicts returned by the scroll.
        next_page_offset: Cursor for the next page, or None when all pages
                          have been consumed.
    """

    result: list[dict]
    next_page_offset: str | int | None = None
