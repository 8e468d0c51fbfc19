"""Attachment descriptors stored in document fields."""

from typing import Any, Dict, Optional


class File:
    """Describes a binary attachment kept outside the document.

    Only the descriptor (MIME type, name, download URL) is written to the
    document; uploading the bytes is up to the application.

    Example:
        avatar = File(name="me.png", mime_type="image/png",
                      url="https://cdn.example.com/me.png")
        user.avatar = avatar
        user.snapshot_body()["avatar"]
        # {'mimeType': 'image/png', 'name': 'me.png', 'url': 'https://...'}
    """

    def __init__(
        self,
        name: Optional[str] = None,
        mime_type: Optional[str] = None,
        url: Optional[str] = None,
        additional_data: Optional[Dict[str, Any]] = None,
    ):
        self.name = name
        self.mime_type = mime_type
        self.url = url
        self.additional_data = additional_data or {}
        self.key: Optional[str] = None

    @classmethod
    def from_value(cls, value: Dict[str, Any]) -> "File":
        """Rebuild a File from its stored descriptor."""
        return cls(
            name=value.get("name"),
            mime_type=value.get("mimeType"),
            url=value.get("url"),
            additional_data=value.get("additionalData"),
        )

    def value(self) -> Dict[str, Any]:
        """The stored form of this descriptor."""
        data = {"mimeType": self.mime_type, "name": self.name, "url": self.url}
        if self.additional_data:
            data["additionalData"] = dict(self.additional_data)
        return data

    def set_value(self, value: Dict[str, Any], key: str) -> None:
        self.name = value.get("name")
        self.mime_type = value.get("mimeType")
        self.url = value.get("url")
        self.additional_data = value.get("additionalData") or {}
        self.key = key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, File):
            return NotImplemented
        return self.value() == other.value()

    def __repr__(self) -> str:
        return f"File(name={self.name!r}, mime_type={self.mime_type!r}, url={self.url!r})"
