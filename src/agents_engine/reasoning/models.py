"""
Request/response models for the completion service.

OpenAI-compatible shapes, trimmed to what an agent turn needs.
"""

import json
from typing import Optional, List, Dict, Any, Union, Literal
from datetime import datetime
from pydantic import BaseModel, Field


class FunctionDefinition(BaseModel):
    """Function definition for tool use."""
    name: str
    description: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None


class ToolDefinition(BaseModel):
    """Tool catalog entry exposed to the model."""
    type: Literal["function"] = "function"
    function: FunctionDefinition


class ToolCallRequest(BaseModel):
    """Tool call emitted by the model."""
    id: str
    type: Literal["function"] = "function"
    function: Dict[str, Any]  # {"name": str, "arguments": str}

    @property
    def name(self) -> str:
        return self.function.get("name", "")

    def parse_arguments(self) -> Dict[str, Any]:
        """
        Decode the JSON argument string.

        Raises:
            ValueError: If the arguments are not a JSON object
        """
        raw = self.function.get("arguments") or "{}"
        if isinstance(raw, dict):
            return raw
        parsed = json.loads(raw)
        if not isinstance(parsed, dict):
            raise ValueError("Tool arguments must be a JSON object")
        return parsed


class Message(BaseModel):
    """
    Conversation message.

    Supports:
    - System messages
    - User messages
    - Assistant messages (with optional tool calls)
    - Tool messages (results)
    """
    role: Literal["system", "user", "assistant", "tool"]
    content: Optional[Union[str, List[Dict[str, Any]]]] = None
    name: Optional[str] = None
    tool_calls: Optional[List[ToolCallRequest]] = None
    tool_call_id: Optional[str] = None

    class Config:
        extra = "allow"


class ChatRequest(BaseModel):
    """Chat completion request for one reasoning call."""
    model: str = Field(..., description="Model identifier")
    messages: List[Message] = Field(..., description="Conversation messages")

    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    user: Optional[str] = None

    tools: Optional[List[ToolDefinition]] = None
    tool_choice: Optional[Union[str, Dict[str, Any]]] = None

    metadata: Optional[Dict[str, Any]] = None

    def to_openai_format(self) -> Dict[str, Any]:
        """Convert to OpenAI API format."""
        data = {
            "model": self.model,
            "messages": [m.model_dump(exclude_none=True) for m in self.messages],
        }

        for field in ("temperature", "max_tokens", "user", "tool_choice"):
            value = getattr(self, field, None)
            if value is not None:
                data[field] = value

        if self.tools:
            data["tools"] = [t.model_dump(exclude_none=True) for t in self.tools]

        return data


class Usage(BaseModel):
    """Token usage information."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ResponseMessage(BaseModel):
    """Message in response."""
    role: Literal["assistant"] = "assistant"
    content: Optional[str] = None
    tool_calls: Optional[List[ToolCallRequest]] = None
    refusal: Optional[str] = None


class Choice(BaseModel):
    """A single completion choice."""
    index: int = 0
    message: ResponseMessage
    finish_reason: Optional[str] = None


class ChatResponse(BaseModel):
    """Chat completion response."""
    id: str = Field(default="")
    created: int = Field(default_factory=lambda: int(datetime.now().timestamp()))
    model: str = Field(default="")
    choices: List[Choice] = Field(default_factory=list)
    usage: Optional[Usage] = None
    client: Optional[str] = None

    @classmethod
    def from_openai(cls, data: Dict[str, Any], client: str = None) -> "ChatResponse":
        """Create from OpenAI API response."""
        choices = []
        for c in data.get("choices", []):
            message = c.get("message", {})
            choices.append(Choice(
                index=c.get("index", 0),
                message=ResponseMessage(
                    content=message.get("content"),
                    tool_calls=[
                        ToolCallRequest(**tc) for tc in message.get("tool_calls", [])
                    ] if message.get("tool_calls") else None,
                    refusal=message.get("refusal"),
                ),
                finish_reason=c.get("finish_reason"),
            ))

        usage_data = data.get("usage")
        usage = Usage(**{k: v for k, v in usage_data.items() if k in Usage.model_fields}) if usage_data else None

        return cls(
            id=data.get("id", ""),
            created=data.get("created", int(datetime.now().timestamp())),
            model=data.get("model", ""),
            choices=choices,
            usage=usage,
            client=client,
        )

    @classmethod
    def text(cls, content: str, model: str = "") -> "ChatResponse":
        """Build a plain-text response."""
        return cls(
            model=model,
            choices=[Choice(message=ResponseMessage(content=content), finish_reason="stop")],
        )

    @classmethod
    def tool_calls(cls, calls: List[Dict[str, Any]], model: str = "") -> "ChatResponse":
        """
        Build a response requesting tool calls.

        Args:
            calls: Dicts with "id", "name" and "arguments" (dict or JSON string)
            model: Model name to report
        """
        requests = []
        for call in calls:
            arguments = call.get("arguments", {})
            if not isinstance(arguments, str):
                arguments = json.dumps(arguments)
            requests.append(ToolCallRequest(
                id=call["id"],
                function={"name": call["name"], "arguments": arguments},
            ))
        return cls(
            model=model,
            choices=[Choice(message=ResponseMessage(tool_calls=requests), finish_reason="tool_calls")],
        )

    def get_content(self) -> Optional[str]:
        """Get the content from the first choice."""
        if self.choices:
            return self.choices[0].message.content
        return None

    def get_tool_calls(self) -> List[ToolCallRequest]:
        """Get tool calls from the first choice."""
        if self.choices and self.choices[0].message.tool_calls:
            return self.choices[0].message.tool_calls
        return []
