"""Resource type resolution against the schema catalog."""

from aztf_bridge.client.exceptions import InvalidTypeError
from aztf_bridge.resources import resource_kind
from aztf_bridge.schema.catalog import SchemaCatalog
from aztf_bridge.session.models import ResourceItem


class TypeResolver:
    """Decides which Terraform type a resource item is imported as.

    The resolver never mutates the item; applying the result is the
    session controller's job. An empty result means "unresolved", which the
    controller turns into a skip.
    """

    def __init__(self, catalog: SchemaCatalog):
        self.catalog = catalog

    def recommend(self, item: ResourceItem) -> str:
        """Recommended type for the item, or ``""``.

        A recommendation supplied by discovery wins over the catalog's
        kind table, as long as the catalog accepts it.
        """
        if item.recommended_type and self.catalog.is_valid_type(item.recommended_type):
            return item.recommended_type
        try:
            kind = resource_kind(item.cloud_id)
        except ValueError:
            return ""
        return self.catalog.recommended_type(kind) or ""

    def resolve(self, item: ResourceItem, user_input: str = "") -> str:
        """Resolve the type for an item.

        Args:
            item: Item being resolved
            user_input: Type typed by the user or read from a mapping file

        Returns:
            The validated type, the recommendation for empty input, or ``""``

        Raises:
            InvalidTypeError: If non-empty input is not a catalog type
        """
        resource_type = (user_input or "").strip()
        if not resource_type:
            return self.recommend(item)
        if not self.catalog.is_valid_type(resource_type):
            raise InvalidTypeError(resource_type, cloud_id=item.cloud_id)
        return resource_type

    def validate(self, item: ResourceItem, user_input: str) -> str:
        """Validate explicit input without falling back to a recommendation.

        Empty input resolves to ``""`` (an explicit skip).

        Raises:
            InvalidTypeError: If non-empty input is not a catalog type
        """
        if not (user_input or "").strip():
            return ""
        return self.resolve(item, user_input)
