"""
Pydantic models for the backend API.

Request bodies for the REST endpoints and the messages a client can send
over the WebSocket. Clients may use `layout` or `graph_layout`, and
`nodeId` or `node_id`.
"""
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, model_validator

from hierviz.formats import Format
from hierviz.models import GraphLayout, PayloadShape, Theme, ViewKind


class ConvertRequest(BaseModel):
    """Convert source text into a payload."""
    text: str
    format: Format = Format.JSON
    shape: PayloadShape = PayloadShape.GRAPH


class RenderOptions(BaseModel):
    """View options shared by REST and WebSocket render calls."""
    view: ViewKind = ViewKind.GRAPH
    graph_layout: GraphLayout = GraphLayout.COLUMNS
    theme: Theme = Theme.LIGHT
    width: float = Field(default=0, ge=0)
    height: float = Field(default=0, ge=0)

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        if isinstance(data, dict) and 'layout' in data and 'graph_layout' not in data:
            data = dict(data)
            data['graph_layout'] = data.pop('layout')
        return data


class RenderDocumentRequest(RenderOptions):
    """
    Render either a ready payload or source text.

    At most one of `payload` and `text` is given (neither renders nothing);
    `format` applies to text.
    """
    payload: Optional[Union[dict, str]] = None
    text: Optional[str] = None
    format: Format = Format.JSON

    @model_validator(mode='after')
    def check_payload_or_text(self) -> "RenderDocumentRequest":
        if self.payload is not None and self.text is not None:
            raise ValueError("Give either 'payload' or 'text', not both")
        return self


# --- WebSocket messages ---

class RenderMessage(RenderDocumentRequest):
    type: Literal["render"]


class GestureMessage(BaseModel):
    """drag_start / drag / drag_end on a node, in screen coordinates."""
    type: Literal["drag_start", "drag", "drag_end", "hover", "unhover"]
    node_id: str
    x: Optional[float] = None
    y: Optional[float] = None

    @model_validator(mode='before')
    @classmethod
    def convert_legacy_fields(cls, data: Any) -> Any:
        if isinstance(data, dict) and 'nodeId' in data and 'node_id' not in data:
            data = dict(data)
            data['node_id'] = data.pop('nodeId')
        return data


class ZoomMessage(BaseModel):
    type: Literal["zoom"]
    factor: float = Field(gt=0)
    cx: Optional[float] = None
    cy: Optional[float] = None


class PanMessage(BaseModel):
    type: Literal["pan"]
    dx: float = 0
    dy: float = 0


class PingMessage(BaseModel):
    type: Literal["ping"]


ClientMessage = Union[RenderMessage, GestureMessage, ZoomMessage, PanMessage, PingMessage]

client_message_adapter = TypeAdapter(Annotated[ClientMessage, Field(discriminator="type")])
