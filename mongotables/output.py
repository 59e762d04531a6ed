from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TableResponse(BaseModel):
    """ A DataTables server-side processing response

        Serialize it with `model_dump(by_alias=True)` to get the names DataTables expects.
        A non-null `error` means that the response can't be relied upon, whatever the HTTP status is.
    """
    model_config = ConfigDict(populate_by_name=True, arbitrary_types_allowed=True)

    #: The draw counter of the request, echoed back
    draw: int = 1

    #: Total number of records, before filtering (but after the pre-filtering criteria)
    records_total: int = Field(0, alias='recordsTotal')

    #: Number of records after filtering
    records_filtered: int = Field(0, alias='recordsFiltered')

    #: The records to display
    data: List[Any] = []

    #: Error message, if anything went wrong
    error: Optional[str] = None
