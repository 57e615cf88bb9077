"""
Contact data model for Plaxo synchronization.

Provides the normalized Address and Contact representations together with
the parser that turns entries of the Plaxo contacts feed into contacts:
- Picking the work/home/mobile/fax variant out of type-tagged sub-lists
- Skipping malformed or incomplete entries without failing the whole feed
- Lazy, cached download of the contact photo
- Computing content hashes for change detection in the local store
"""

import enum
import hashlib
import json
import logging
from dataclasses import dataclass, field, fields
from typing import IO, Any, Optional, Union

from plaxo_sync.sync.photo import DOWNLOAD_TIMEOUT, fetch_contact_photo

logger = logging.getLogger(__name__)

# Tag -> attribute tables for the typed sub-lists of a feed entry.
# No tag maps to home_fax or cell_home_phone.
EMAIL_TYPES = {"work": "work_email", "home": "home_email"}
URL_TYPES = {"work": "work_url", "home": "home_url"}
PHONE_TYPES = {
    "work": "work_phone",
    "home": "home_phone",
    "fax": "work_fax",
    "mobile": "cell_work_phone",
}
ADDRESS_TYPES = {"work": "work_address", "home": "home_address"}
PHOTO_TYPE = "home"

# Feed address keys -> Address attributes
ADDRESS_FIELDS = {
    "streetAddress": "street",
    "locality": "city",
    "postalCode": "zip",
    "region": "state",
    "country": "country",
}


class ContactParseError(ValueError):
    """Raised when a single feed entry cannot be turned into a Contact."""

    pass


class FeedParseError(Exception):
    """Raised when a whole contacts feed document cannot be parsed."""

    pass


class ImageState(enum.Enum):
    """State of the lazily fetched contact photo."""

    NOT_FETCHED = "not_fetched"
    FETCHED = "fetched"
    EMPTY = "empty"


@dataclass(eq=False)
class Address:
    """
    Postal address of a contact.

    All parts default to the empty string. Equality is structural, but an
    address holding a None part never compares equal to anything.
    """

    street: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    country: str = ""

    def _parts(self) -> tuple[Optional[str], ...]:
        return (self.street, self.city, self.state, self.zip, self.country)

    def is_empty(self) -> bool:
        """Return True if every part of the address is blank."""
        return not any(self._parts())

    def to_dict(self) -> dict[str, str]:
        """Serialize the address, mapping None parts to empty strings."""
        return {f.name: getattr(self, f.name) or "" for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Address":
        """Build an address from a dict produced by to_dict()."""
        return cls(**{f.name: data.get(f.name) or "" for f in fields(cls)})

    def __eq__(self, other: object) -> bool:
        if other is None or not isinstance(other, Address):
            return False
        if any(part is None for part in self._parts()):
            return False
        return self._parts() == other._parts()

    def __hash__(self) -> int:
        return hash(tuple(part or "" for part in self._parts()))


@dataclass
class Contact:
    """
    Normalized representation of one remote Plaxo contact.

    String fields are never None; a missing value is the empty string.
    A contact holds at most one work and one home variant of each typed
    field; when the feed supplies several, the last one wins.

    Attributes:
        id: Plaxo's identifier, unique per remote account
        first_name: Given name (required for a valid contact)
        last_name: Family name (required for a valid contact)
        image_url: URL of the home-tagged photo, fetched on demand
        date_of_birth: Birthday exactly as supplied by the server
        work_address: Optional work Address
        home_address: Optional home Address

    Usage:
        contact = Contact.from_feed_entry(entry)
        if contact.is_valid():
            photo = contact.image  # blocking download on first access
    """

    id: str = ""
    name_prefix: str = ""
    first_name: str = ""
    last_name: str = ""
    work_email: str = ""
    home_email: str = ""
    image_url: str = ""
    cell_work_phone: str = ""
    work_phone: str = ""
    work_fax: str = ""
    work_url: str = ""
    cell_home_phone: str = ""
    home_phone: str = ""
    home_fax: str = ""
    home_url: str = ""
    company: str = ""
    title: str = ""
    date_of_birth: str = ""
    work_address: Optional[Address] = None
    home_address: Optional[Address] = None

    # Photo cache, see the image property
    _image: Optional[bytes] = field(
        default=None, init=False, repr=False, compare=False
    )
    _image_state: ImageState = field(
        default=ImageState.NOT_FETCHED, init=False, repr=False, compare=False
    )

    @classmethod
    def from_feed_entry(cls, entry: Any) -> "Contact":
        """
        Create a Contact from one entry of the Plaxo contacts feed.

        Args:
            entry: Decoded JSON object of a single feed entry

        Returns:
            Contact populated from the entry. The caller decides whether
            it is complete enough to keep (see is_valid()).

        Raises:
            ContactParseError: If the entry has no id, no name object,
                or a structurally malformed field

        Example entry::

            {
                'id': '42',
                'name': {'givenName': 'Jane', 'familyName': 'Doe'},
                'birthday': '1970-01-01',
                'photos': [{'type': 'home', 'value': 'http://...'}],
                'emails': [{'type': 'work', 'value': 'jane@acme.com'}],
                'phoneNumbers': [{'type': 'mobile', 'value': '+1 555'}],
                'organizations': [{'name': 'Acme', 'title': 'CEO'}],
                'addresses': [{'type': 'home', 'postalCode': '12345'}]
            }
        """
        if not isinstance(entry, dict):
            raise ContactParseError(
                f"Feed entry must be an object, got {type(entry).__name__}"
            )
        if entry.get("id") is None:
            raise ContactParseError("Feed entry has no id")

        contact = cls(id=_text(entry, "id"))

        name = entry.get("name")
        if not isinstance(name, dict):
            raise ContactParseError(f"Feed entry {contact.id} has no name")
        contact.first_name = _text(name, "givenName")
        contact.last_name = _text(name, "familyName")

        if "birthday" in entry:
            contact.date_of_birth = _text(entry, "birthday")

        for photo in _objects(entry, "photos"):
            if photo.get("type") == PHOTO_TYPE:
                contact.image_url = _text(photo, "value")

        _apply_typed_values(contact, _objects(entry, "emails"), EMAIL_TYPES)
        _apply_typed_values(contact, _objects(entry, "urls"), URL_TYPES)
        _apply_typed_values(contact, _objects(entry, "phoneNumbers"), PHONE_TYPES)

        # Only the first organization is used
        organizations = _objects(entry, "organizations")
        if organizations:
            organization = organizations[0]
            if "name" in organization:
                contact.company = _text(organization, "name")
            if "title" in organization:
                contact.title = _text(organization, "title")

        for item in _objects(entry, "addresses"):
            address = Address(
                **{attr: _text(item, key) for key, attr in ADDRESS_FIELDS.items()}
            )
            target = ADDRESS_TYPES.get(_text(item, "type"))
            if target:
                setattr(contact, target, address)

        return contact

    @property
    def display_name(self) -> str:
        """Full name built from the name parts that are present."""
        parts = [self.name_prefix, self.first_name, self.last_name]
        return " ".join(p for p in parts if p)

    @property
    def image_state(self) -> ImageState:
        """Current state of the photo cache."""
        return self._image_state

    @property
    def image(self) -> Optional[bytes]:
        """
        Photo of the contact as JPEG bytes, or None.

        The first access with a non-empty image_url downloads and re-encodes
        the photo synchronously, blocking the calling thread for up to the
        download timeout. The outcome of that attempt is cached: a failed
        or empty download is not retried on later accesses.
        """
        return self.fetch_image()

    def fetch_image(self, timeout: float = DOWNLOAD_TIMEOUT) -> Optional[bytes]:
        """Resolve the photo cache, downloading at most once."""
        if self._image_state is ImageState.NOT_FETCHED:
            data = fetch_contact_photo(self.image_url, timeout=timeout)
            self.set_image(data)
        return self._image

    def set_image(self, data: Optional[bytes]) -> None:
        """Seed the photo cache with already known bytes (or no photo)."""
        self._image = data or None
        self._image_state = ImageState.FETCHED if data else ImageState.EMPTY

    def is_valid(self) -> bool:
        """
        Check if the contact may be admitted into a fetch result.

        Returns:
            True if id, first name and last name are all present
        """
        return bool(self.id and self.first_name and self.last_name)

    def content_hash(self) -> str:
        """
        Generate a hash of the contact's content for change detection.

        Covers every string field and both addresses, but not the photo.

        Returns:
            SHA-256 hash string of contact content
        """
        content: dict[str, Any] = {}
        for f in fields(self):
            if f.name.startswith("_"):
                continue
            value = getattr(self, f.name)
            if isinstance(value, Address):
                value = value.to_dict()
            content[f.name] = value
        content_string = json.dumps(content, sort_keys=True)
        return hashlib.sha256(content_string.encode("utf-8")).hexdigest()

    def __repr__(self) -> str:
        """Return a readable string representation."""
        return (
            f"Contact(id={self.id!r}, "
            f"display_name={self.display_name!r}, "
            f"work_email={self.work_email!r})"
        )


def _text(obj: dict[str, Any], key: str) -> str:
    """Read a scalar field as a string; a missing or null field is ''."""
    value = obj.get(key)
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise ContactParseError(f"Field '{key}' must be a scalar value")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _objects(entry: dict[str, Any], key: str) -> list[dict[str, Any]]:
    """Read an optional array of objects from a feed entry."""
    items = entry.get(key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise ContactParseError(f"Field '{key}' must be an array")
    for item in items:
        if not isinstance(item, dict):
            raise ContactParseError(f"Elements of '{key}' must be objects")
    return items


def _apply_typed_values(
    contact: Contact, items: list[dict[str, Any]], type_map: dict[str, str]
) -> None:
    """Assign each tagged value to its attribute; later entries overwrite."""
    for item in items:
        attr = type_map.get(_text(item, "type"))
        if attr:
            setattr(contact, attr, _text(item, "value"))


def _load_document(source: Union[IO[Any], bytes, str, dict[str, Any]]) -> Any:
    if isinstance(source, dict):
        return source
    try:
        if isinstance(source, (bytes, bytearray, str)):
            return json.loads(source)
        return json.load(source)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FeedParseError(f"Contacts feed is not valid JSON: {e}") from e


def parse_contacts_feed(
    source: Union[IO[Any], bytes, str, dict[str, Any]],
) -> list[Contact]:
    """
    Parse a Plaxo contacts feed document into contacts.

    Malformed entries and entries without id, first name or last name are
    skipped; the rest of the feed is still parsed.

    Args:
        source: The feed as a stream, raw bytes/str, or decoded dict.
            Expected shape: ``{"entry": [ {...}, ... ]}``

    Returns:
        List of valid contacts, in feed order

    Raises:
        FeedParseError: If the document is not JSON or has no entry array
    """
    logger.debug("Trying to parse the JSON")
    document = _load_document(source)

    entries = document.get("entry") if isinstance(document, dict) else None
    if not isinstance(entries, list):
        raise FeedParseError("Contacts feed has no 'entry' array")

    contacts: list[Contact] = []
    for index, entry in enumerate(entries):
        try:
            contact = Contact.from_feed_entry(entry)
        except ContactParseError as e:
            logger.warning(f"Skipping malformed feed entry #{index}: {e}")
            continue

        if not contact.is_valid():
            logger.debug(f"Skipping incomplete contact {contact.id!r}")
            continue

        contacts.append(contact)

    return contacts
