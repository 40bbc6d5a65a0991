import json
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from gitopsflow.exception import MalformedEventError, MissingSecretError


# Токены, под которыми внешние источники присылают известные события
EVENT_TYPE_ALIASES: Dict[str, str] = {
    "gcr_image_push": "image_push",
}


class EventType(str, Enum):
    IMAGE_PUSH = "image_push"
    PULL_REQUEST = "pull_request"
    PUSH = "push"
    ERROR = "error"
    # всё, что пришло с неизвестным типом
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Any) -> "EventType":
        if isinstance(value, cls):
            return value
        token = EVENT_TYPE_ALIASES.get(str(value), str(value))
        try:
            return cls(token)
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def routable(cls) -> List["EventType"]:
        return [member for member in cls if member is not cls.UNKNOWN]


class Revision(BaseModel):
    model_config = ConfigDict(frozen=True)

    commit: str = ""


class Event(BaseModel):
    """
    Событие от слоя приёма вебхуков. Неизменяемое.

    payload приходит либо JSON-строкой (как отдаёт шлюз), либо уже
    разобранным объектом; содержимое считается недоверенным.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: EventType
    raw_type: str = ""
    build_id: str = Field(alias="buildID", min_length=1)
    revision: Revision = Field(default_factory=Revision)
    payload: Union[str, Dict[str, Any], List[Any], None] = None

    @model_validator(mode="before")
    @classmethod
    def _keep_raw_type(cls, data: Any) -> Any:
        if isinstance(data, dict) and "type" in data and not data.get("raw_type"):
            data = dict(data)
            data["raw_type"] = str(getattr(data["type"], "value", data["type"]))
        return data

    @field_validator("type", mode="before")
    @classmethod
    def _parse_type(cls, value: Any) -> EventType:
        return EventType.parse(value)

    def decoded_payload(self) -> Any:
        if isinstance(self.payload, str):
            try:
                return json.loads(self.payload)
            except json.JSONDecodeError as e:
                raise MalformedEventError(self.type.value, f"payload is not JSON: {e}")
        return self.payload

    def parse_payload(self, model: type) -> Any:
        """
        Разбирает payload в pydantic-модель конкретного события.

        :raises MalformedEventError: нет обязательных полей или это не JSON.
        """
        data = self.decoded_payload()
        try:
            return model.model_validate(data)
        except ValidationError as e:
            missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise MalformedEventError(
                self.type.value,
                f"invalid fields: {', '.join(missing)}",
                logs=[str(e)],
            )


class Repo(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    clone_url: str = Field(alias="cloneURL")


class Project(BaseModel):
    """
    Проект, к которому относится событие. Только для чтения.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    repo: Repo
    secrets: Dict[str, str] = Field(default_factory=dict)

    def secret(self, key: str) -> str:
        value = self.secrets.get(key)
        if value is None:
            raise MissingSecretError(project=self.name, key=key)
        return value


# ==============
# Payload'ы событий
# ==============

class ImageData(BaseModel):
    action: str  # "INSERT" или "DELETE"
    tag: str = Field(min_length=1)


class ImagePushPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_data: ImageData = Field(alias="imageData")


class PullRequestInfo(BaseModel):
    title: str
    html_url: str


class PullRequestPayload(BaseModel):
    pull_request: PullRequestInfo


class PushPayload(BaseModel):
    ref: str


# ==============
# Ответ ядра
# ==============

class HandleStatus(str, Enum):
    OK = "ok"
    # нет обработчика для типа события
    IGNORED = "ignored"
    # обработчик сознательно ничего не сделал (ветка не та и т.п.)
    FILTERED = "filtered"
    ERROR = "error"


class HandleResponse(BaseModel):
    status: HandleStatus
    event_type: str
    build_id: str
    jobs: List[str] = []
    warnings: List[str] = []
    logs: List[str] = []
    error: Optional[str] = None
