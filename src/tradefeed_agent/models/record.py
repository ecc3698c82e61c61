"""
Record Wire Schema
==================

Pydantic models for the JSON records carried on the streaming feed.

Input Contract (one record per line):
    {
        "data": {
            "id": "1228393702244134912",
            "text": "Surprised that Harley-Davidson, of all companies, ..."
        },
        "matching_rules": [{"id": "...", "tag": null}]
    }

Anything that does not validate against StreamRecord is treated as a
heartbeat by the classifier. Unknown fields are preserved so consumers
see the full decoded object.

Example:
    from tradefeed_agent.models.record import StreamRecord

    record = StreamRecord.model_validate_json(line)
    print(record.data.text)
"""

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RecordData(BaseModel):
    """
    The `data` object of a streaming record.

    Attributes:
        id: Upstream record identifier, when present
        text: Textual payload of the record
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[Union[str, int]] = Field(
        default=None,
        description="Upstream record identifier",
    )

    text: str = Field(
        ...,
        description="Textual payload of the record",
    )


class StreamRecord(BaseModel):
    """Schema for one decodable record on the stream."""

    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "data": {
                    "id": "1228393702244134912",
                    "text": "Tariffs on the E.U. #trade @someone",
                },
            }
        },
    )

    data: RecordData = Field(
        ...,
        description="Record payload",
    )
