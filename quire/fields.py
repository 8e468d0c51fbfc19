"""Declared-field registry for Document types."""

from typing import Any, Dict, List, Optional, Type


class FieldRegistry:
    """Maps Document types to the ordered names of their persisted fields.

    Fields are registered once, when the class is defined, and read
    thereafter. Registering the same name twice keeps both entries in the
    raw list; ``fields_of`` collapses them.

    Example:
        registry = FieldRegistry()
        registry.register(User, "name")
        registry.register(User, "age")

        registry.fields_of(User)  # ["name", "age"]
    """

    def __init__(self):
        self._fields: Dict[type, List[str]] = {}

    def register(self, cls: type, name: str) -> None:
        """Append a field name to the list for ``cls``.

        Args:
            cls: The Document class declaring the field
            name: Attribute name of the field
        """
        self._fields.setdefault(cls, []).append(name)

    def registered(self, cls: type) -> List[str]:
        """Names registered directly on ``cls``, duplicates included."""
        return list(self._fields.get(cls, []))

    def fields_of(self, cls: type) -> List[str]:
        """All persisted field names of ``cls``.

        Inherited fields come first, then the class's own, each in
        declaration order without duplicates.
        """
        names: List[str] = []
        for klass in reversed(cls.__mro__):
            for name in self._fields.get(klass, ()):
                if name not in names:
                    names.append(name)
        return names

    def clear(self) -> None:
        """Remove all registered fields."""
        self._fields.clear()


registry = FieldRegistry()


def register(cls: Type[Any], *names: str) -> Type[Any]:
    """Declare persisted fields on ``cls`` without descriptors.

    Example:
        class Item(Document):
            pass

        register(Item, "title", "price")
    """
    for name in names:
        registry.register(cls, name)
    return cls


class Field:
    """Descriptor declaring a persisted field on a Document subclass.

    Reading the attribute returns ``current_value(name)``; assigning calls
    ``set_field(name, value)`` so the change is tracked.

    Example:
        class User(Document):
            name = Field()
            age = Field()

        user = User()
        user.name = "alice"  # recorded in the dirty buffer
    """

    def __init__(self, doc: Optional[str] = None):
        self.name: Optional[str] = None
        self.__doc__ = doc

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name
        registry.register(owner, name)

    def __get__(self, instance: Any, owner: Optional[type] = None) -> Any:
        if instance is None:
            return self
        return instance.current_value(self.name)

    def __set__(self, instance: Any, value: Any) -> None:
        instance.set_field(self.name, value)

    def __repr__(self) -> str:
        return f"Field({self.name!r})"
