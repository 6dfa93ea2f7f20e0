"""
Ordered match strategies for contacts and companies.

Each strategy is a descriptor: which subject fields must be non-empty, the
search to run, and a predicate that keeps only true matches. A single loop
evaluates them in order and stops at the first one that keeps anything.
"""

from typing import Callable, List, NamedTuple, Sequence, Tuple, Union

from .logger import get_logger
from .normalize import (
    CompanySubject,
    ContactSubject,
    domain_root,
    normalize_email,
    normalize_text,
    normalize_url,
    normalize_username,
    phone_digits,
    split_email,
    strip_domain,
)
from .schema import Record
from .search import SearchRequest, all_of, any_of, contains_token, eq, text_query
from .similarity import is_fuzzy_name_match

logger = get_logger()

Subject = Union[ContactSubject, CompanySubject]

# Strategy kinds
EXACT_FIELD = "exact_field"
TOKEN_SEARCH = "token_search"
FREE_TEXT = "free_text"
SIMILARITY = "similarity"

NO_MATCH = "none"


class Strategy(NamedTuple):
    name: str
    kind: str
    requires: Tuple[str, ...]
    query: Callable[[Subject], SearchRequest]
    accepts: Callable[[Subject, Record], bool]

    def applies(self, subject: Subject) -> bool:
        return all(getattr(subject, field) for field in self.requires)


class MatchResult(NamedTuple):
    strategy: str
    candidates: List[Record]

    @property
    def count(self) -> int:
        return len(self.candidates)


def _always(subject, candidate) -> bool:
    return True


def _candidate_email(candidate: Record) -> str:
    return normalize_email(candidate.get("email"))


def _candidate_username(candidate: Record) -> str:
    return split_email(_candidate_email(candidate))[0]


# Contacts

def _by_name(s: ContactSubject) -> SearchRequest:
    return all_of(eq("firstname", s.first_name), eq("lastname", s.last_name))


def _same_phone(s: ContactSubject, c: Record) -> bool:
    return phone_digits(c.get("phone")) == s.phone


def _same_email(s: ContactSubject, c: Record) -> bool:
    return _candidate_email(c) == s.email


def _same_username(s: ContactSubject, c: Record) -> bool:
    return _candidate_username(c) == s.email_username


def _same_username_and_domain_root(s: ContactSubject, c: Record) -> bool:
    username, domain = split_email(_candidate_email(c))
    return username == s.email_username and domain_root(domain) == s.domain_root


def _same_normalized_username(s: ContactSubject, c: Record) -> bool:
    return normalize_username(_candidate_username(c)) == s.normalized_username


def _has_no_email(s: ContactSubject, c: Record) -> bool:
    return not (c.get("email") or "").strip()


def _same_company(s: ContactSubject, c: Record) -> bool:
    return normalize_text(c.get("company")) == s.company


CONTACT_STRATEGIES: List[Strategy] = [
    Strategy("name_phone", EXACT_FIELD, ("first_name", "last_name", "phone"),
             _by_name, _same_phone),
    Strategy("name_email", EXACT_FIELD, ("first_name", "last_name", "email"),
             lambda s: all_of(eq("firstname", s.first_name), eq("lastname", s.last_name),
                              eq("email", s.email)),
             _same_email),
    Strategy("name_email_username", EXACT_FIELD, ("first_name", "last_name", "email_username"),
             _by_name, _same_username),
    Strategy("email_only", EXACT_FIELD, ("email",),
             lambda s: all_of(eq("email", s.email)), _same_email),
    Strategy("username_domain_root", FREE_TEXT, ("email_username", "domain_root"),
             lambda s: text_query(s.email_username), _same_username_and_domain_root),
    Strategy("normalized_username", FREE_TEXT, ("normalized_username",),
             lambda s: text_query(s.normalized_username), _same_normalized_username),
    Strategy("name_no_email", EXACT_FIELD, ("first_name", "last_name"),
             _by_name, _has_no_email),
    Strategy("name_company", EXACT_FIELD, ("first_name", "last_name", "company"),
             _by_name, _same_company),
]


# Companies

def _by_domain(s: CompanySubject) -> SearchRequest:
    return any_of([eq("domain", s.base_domain)], [eq("domain", f"www.{s.base_domain}")])


def _same_domain(s: CompanySubject, c: Record) -> bool:
    return strip_domain((c.get("domain") or "").strip()).lower() == s.base_domain.lower()


def _same_website(s: CompanySubject, c: Record) -> bool:
    return (c.get("website") or "").strip().lower() == s.website.lower()


def _same_normalized_website(s: CompanySubject, c: Record) -> bool:
    return normalize_url((c.get("website") or "").strip()).lower() == s.normalized_website.lower()


def _similar_name(s: CompanySubject, c: Record) -> bool:
    return is_fuzzy_name_match(s.name, c.get("name"))


COMPANY_STRATEGIES: List[Strategy] = [
    Strategy("domain", EXACT_FIELD, ("base_domain",), _by_domain, _same_domain),
    Strategy("name_token", TOKEN_SEARCH, ("name",),
             lambda s: all_of(contains_token("name", s.name)), _always),
    Strategy("website", EXACT_FIELD, ("website",),
             lambda s: all_of(eq("website", s.website)), _same_website),
    Strategy("normalized_website", TOKEN_SEARCH, ("normalized_website",),
             lambda s: all_of(contains_token("website", s.normalized_website)),
             _same_normalized_website),
    Strategy("fuzzy_name", SIMILARITY, ("name",),
             lambda s: text_query(s.name), _similar_name),
]


def run_pipeline(subject: Subject, strategies: Sequence[Strategy], search) -> MatchResult:
    """
    Evaluate strategies in order and return the first non-empty match.

    Strategies whose required fields are empty are skipped without a
    search. Candidates are de-duplicated by id; the subject itself never
    appears because the search adapter drops it.
    """
    for strategy in strategies:
        if not strategy.applies(subject):
            logger.debug("Strategy precondition not met", strategy=strategy.name)
            continue

        seen = set()
        matches: List[Record] = []
        for candidate in search.search(strategy.query(subject)):
            if candidate.id in seen or candidate.id == subject.id:
                continue
            seen.add(candidate.id)
            if strategy.accepts(subject, candidate):
                matches.append(candidate)

        if matches:
            logger.info(
                "Strategy matched",
                strategy=strategy.name,
                kind=strategy.kind,
                matches=[c.id for c in matches],
            )
            return MatchResult(strategy.name, matches)

        logger.debug("Strategy found no match", strategy=strategy.name)

    return MatchResult(NO_MATCH, [])
