"""
Entity resolution for imported rows.

Free-text references (account, category and payee names) are turned into
entity ids through a per-execution working set: exact match, then
containment, then weighted-token scoring for accounts, then creation on
demand. Entities created while importing a row become visible to every
later row of the same execution.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.crud.entity import account_crud, category_crud, payee_crud
from app.models.account import Account, AccountType
from app.models.transaction import Category, CategoryType, Payee
from app.services.csv_import.errors import ResolutionError, ValidationError
from app.services.csv_import.field_parsing import normalize_account_type, normalize_name

logger = logging.getLogger(__name__)

ACCOUNT = "account"
CATEGORY = "category"
PAYEE = "payee"

# Widest name each entity table can store
NAME_COLUMN_LENGTHS = {
    ACCOUNT: Account.__table__.c.display_name.type.length,
    CATEGORY: Category.__table__.c.display_name.type.length,
    PAYEE: Payee.__table__.c.display_name.type.length,
}

# Name fragments of major banks; sharing one is strong evidence two names
# refer to the same account
BANK_BRANDS = (
    "chase",
    "citi",
    "wells",
    "fargo",
    "boa",
    "amex",
    "barclays",
    "hsbc",
    "capital",
    "discover",
    "schwab",
    "fidelity",
    "vanguard",
    "ally",
    "hdfc",
    "icici",
    "sbi",
    "axis",
    "kotak",
    "santander",
    "revolut",
    "monzo",
)

EXACT_TOKEN_POINTS = 2
PARTIAL_TOKEN_POINTS = 1
MIN_PARTIAL_TOKEN_LENGTH = 3
SHARED_BRAND_TOKEN_POINTS = 20
SHARED_BRAND_SUBSTRING_POINTS = 10


@dataclass
class EntityRef:
    """What the executor needs to know about an entity, detached from the ORM."""

    id: UUID
    name: str
    display_name: str
    kind: str
    account_type: Optional[AccountType] = None
    category_type: Optional[CategoryType] = None


@dataclass
class WorkingSet:
    """Normalized name -> entity for one execution, in insertion order."""

    accounts: Dict[str, EntityRef] = field(default_factory=dict)
    categories: Dict[str, EntityRef] = field(default_factory=dict)
    payees: Dict[str, EntityRef] = field(default_factory=dict)
    row_additions: List[Tuple[str, str]] = field(default_factory=list)

    @classmethod
    async def load(cls, db: AsyncSession, user_id: UUID) -> "WorkingSet":
        """Snapshot the user's existing entities."""
        working_set = cls()
        for account in await account_crud.list_for_user(db, user_id):
            working_set.accounts[account.name] = EntityRef(
                id=account.id, name=account.name, display_name=account.display_name,
                kind=ACCOUNT, account_type=account.account_type,
            )
        for category in await category_crud.list_for_user(db, user_id):
            working_set.categories[category.name] = EntityRef(
                id=category.id, name=category.name, display_name=category.display_name,
                kind=CATEGORY, category_type=category.category_type,
            )
        for payee in await payee_crud.list_for_user(db, user_id):
            working_set.payees[payee.name] = EntityRef(
                id=payee.id, name=payee.name, display_name=payee.display_name, kind=PAYEE,
            )
        logger.debug(
            "Loaded working set: %d accounts, %d categories, %d payees",
            len(working_set.accounts), len(working_set.categories), len(working_set.payees),
        )
        return working_set

    def entities(self, kind: str) -> Dict[str, EntityRef]:
        return {ACCOUNT: self.accounts, CATEGORY: self.categories, PAYEE: self.payees}[kind]

    def add(self, ref: EntityRef) -> None:
        self.entities(ref.kind)[ref.name] = ref
        self.row_additions.append((ref.kind, ref.name))

    def begin_row(self) -> None:
        self.row_additions = []

    def discard_row(self) -> None:
        """Forget entities added by a row whose changes were rolled back."""
        for kind, name in self.row_additions:
            self.entities(kind).pop(name, None)
        self.row_additions = []


def check_name_length(kind: str, text: str, field: str = "name") -> None:
    """
    Raises:
        ValidationError: If the name does not fit its column
    """
    limit = NAME_COLUMN_LENGTHS[kind]
    if len(text.strip()) > limit:
        raise ValidationError(f"{kind.capitalize()} name is longer than {limit} characters", field=field)


def _tokens(text: str) -> List[str]:
    return text.split()


def find_exact(entities: Dict[str, EntityRef], key: str) -> Optional[EntityRef]:
    return entities.get(key)


def find_containment(entities: Dict[str, EntityRef], key: str) -> Optional[EntityRef]:
    """First entity whose name contains the key or is contained in it."""
    for name, ref in entities.items():
        if not name:
            continue
        if name in key or key in name:
            return ref
    return None


def token_score(candidate: str, entity_name: str) -> int:
    """
    Weighted token similarity between two normalized names.

    +2 per exact token pair, +1 per partial containment pair (tokens of at
    least three characters), +20 when both token sets carry the same bank
    brand, +10 when a brand appears only inside longer tokens of both names.
    """
    candidate_tokens = _tokens(candidate)
    entity_tokens = _tokens(entity_name)
    score = 0

    for left in candidate_tokens:
        for right in entity_tokens:
            if left == right:
                score += EXACT_TOKEN_POINTS
            elif (
                min(len(left), len(right)) >= MIN_PARTIAL_TOKEN_LENGTH
                and (left in right or right in left)
            ):
                score += PARTIAL_TOKEN_POINTS

    candidate_set, entity_set = set(candidate_tokens), set(entity_tokens)
    for brand in BANK_BRANDS:
        if brand in candidate_set and brand in entity_set:
            score += SHARED_BRAND_TOKEN_POINTS
        elif brand in candidate and brand in entity_name:
            score += SHARED_BRAND_SUBSTRING_POINTS

    return score


def find_weighted_token(entities: Dict[str, EntityRef], key: str) -> Optional[EntityRef]:
    """Highest-scoring entity; None when nothing scores or the best score is tied."""
    best: Optional[EntityRef] = None
    best_score = 0
    tied = False

    for name, ref in entities.items():
        score = token_score(key, name)
        if score > best_score:
            best, best_score, tied = ref, score, False
        elif score == best_score and score > 0:
            tied = True

    if tied:
        return None
    return best


def match_entity(entities: Dict[str, EntityRef], text: str, kind: str) -> Optional[EntityRef]:
    """Resolve text against existing entities without creating anything."""
    key = normalize_name(text)
    if not key:
        return None

    ref = find_exact(entities, key) or find_containment(entities, key)
    if ref is None and kind == ACCOUNT:
        ref = find_weighted_token(entities, key)
    return ref


class EntityResolver:
    """Resolves references for one execution against its working set."""

    def __init__(self, db: AsyncSession, user_id: UUID, working_set: WorkingSet):
        self.db = db
        self.user_id = user_id
        self.working_set = working_set
        self.created = {ACCOUNT: 0, CATEGORY: 0, PAYEE: 0}
        self._created_this_row: List[str] = []

    async def resolve_account(self, text: str, create: bool = False) -> EntityRef:
        """
        Resolve an account name.

        Raises:
            ResolutionError: If no account matches and creation is disabled
        """
        ref = match_entity(self.working_set.accounts, text, ACCOUNT)
        if ref is not None:
            return ref
        if not create:
            raise ResolutionError(f"Account '{text}' not found")

        check_name_length(ACCOUNT, text, field="account")

        account_type = normalize_account_type(text) or AccountType.CHECKING
        account = await account_crud.create(
            self.db,
            user_id=self.user_id,
            display_name=text,
            account_type=account_type,
            currency=settings.IMPORT_DEFAULT_CURRENCY,
        )
        ref = EntityRef(
            id=account.id, name=account.name, display_name=account.display_name,
            kind=ACCOUNT, account_type=account_type,
        )
        self.working_set.add(ref)
        self._created_this_row.append(ACCOUNT)
        self.created[ACCOUNT] += 1
        logger.info("Created account '%s' (%s) during import", ref.display_name, account_type.value)
        return ref

    async def resolve_category(
        self, text: str, category_type: CategoryType, create: bool = False
    ) -> EntityRef:
        """
        Resolve a category name; new categories take the given type.

        Raises:
            ResolutionError: If no category matches and creation is disabled
        """
        ref = match_entity(self.working_set.categories, text, CATEGORY)
        if ref is not None:
            return ref
        if not create:
            raise ResolutionError(f"Category '{text}' not found")

        check_name_length(CATEGORY, text, field="category")

        category = await category_crud.create(
            self.db, user_id=self.user_id, display_name=text, category_type=category_type
        )
        ref = EntityRef(
            id=category.id, name=category.name, display_name=category.display_name,
            kind=CATEGORY, category_type=category_type,
        )
        self.working_set.add(ref)
        self._created_this_row.append(CATEGORY)
        self.created[CATEGORY] += 1
        return ref

    async def resolve_payee(self, text: str, create: bool = False) -> EntityRef:
        """
        Resolve a payee name.

        Raises:
            ResolutionError: If no payee matches and creation is disabled
        """
        ref = match_entity(self.working_set.payees, text, PAYEE)
        if ref is not None:
            return ref
        if not create:
            raise ResolutionError(f"Payee '{text}' not found")

        check_name_length(PAYEE, text, field="payee")

        payee = await payee_crud.create(self.db, user_id=self.user_id, display_name=text)
        ref = EntityRef(id=payee.id, name=payee.name, display_name=payee.display_name, kind=PAYEE)
        self.working_set.add(ref)
        self._created_this_row.append(PAYEE)
        self.created[PAYEE] += 1
        return ref

    def begin_row(self) -> None:
        self._created_this_row = []
        self.working_set.begin_row()

    def forget_row(self) -> None:
        """Undo working-set additions and creation counts of a failed row."""
        for kind in self._created_this_row:
            self.created[kind] -= 1
        self._created_this_row = []
        self.working_set.discard_row()
