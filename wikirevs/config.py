import dataclasses
import multiprocessing
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import yaml

logger = multiprocessing.get_logger()

DEFAULT_CONFIG_FILE = os.path.join(Path(__file__).parent, 'resources', 'default_config.yml')


class ArticleCountMethod(Enum):
    """Policy deciding which content pages count as articles"""

    ANY = 'any'
    COMMA = 'comma'
    LINK = 'link'


class SecondaryUpdate(Enum):
    """Work done after a revision was saved, that quick edits may skip"""

    AUTOSUMMARY = 'autosummary'
    LINKS = 'links'
    SITE_STATS = 'site_stats'
    RECENT_CHANGES = 'recent_changes'


@dataclass(frozen=True)
class WikiConfig:
    """Read-only wiki configuration, injected into the wiki and everything created by it

    Attributes:
        article_count_method: countability policy, see :class:`ArticleCountMethod`
        content_namespaces: ids of namespaces whose pages may count as articles
        namespaces: canonical namespace names by id
        namespace_aliases: additional (case-insensitive) prefixes by namespace id
        script_namespaces: namespaces where ``.js``/``.css`` titles get script content models
        always_known: per namespace, page names that are viewable without existing
        use_autosummary: generate a summary for edits saved without a comment
        autosummary_replace_ratio: old/new length ratio above which an edit "replaced" the page
        autosummary_replace_max_length: maximum new length of a "replacing" edit
        autosummary_excerpt_length: maximum length of text quoted in summaries
        delete_reason_max_length: maximum length of a generated deletion reason
        quick_edit_skips: secondary updates that quick edits don't run
        group_permissions: capabilities granted to each user group
        edit_token_secret: secret used to sign edit tokens
    """

    article_count_method: ArticleCountMethod = ArticleCountMethod.LINK
    content_namespaces: frozenset[int] = frozenset({0})
    namespaces: dict[int, str] = field(default_factory=dict)
    namespace_aliases: dict[str, int] = field(default_factory=dict)
    script_namespaces: frozenset[int] = frozenset({2, 8})
    always_known: dict[int, frozenset[str]] = field(default_factory=dict)
    use_autosummary: bool = True
    autosummary_replace_ratio: int = 10
    autosummary_replace_max_length: int = 500
    autosummary_excerpt_length: int = 150
    delete_reason_max_length: int = 255
    quick_edit_skips: frozenset[SecondaryUpdate] = frozenset(SecondaryUpdate)
    group_permissions: dict[str, frozenset[str]] = field(default_factory=dict)
    edit_token_secret: str = ''

    @staticmethod
    def load(path: str | None = None, **overrides) -> 'WikiConfig':
        """Load the configuration from a yaml file

        Args:
            path: configuration file; the packaged default configuration is used when omitted
            **overrides: values that take precedence over the file

        Raises:
            ValueError: if a value in the file can't be interpreted
        """
        path = path or DEFAULT_CONFIG_FILE
        with open(path, encoding='utf-8') as file:
            data = yaml.safe_load(file) or {}
        logger.debug(f'Loaded wiki configuration from {path}')

        data.update(overrides)
        return WikiConfig._from_dict(data)

    @staticmethod
    def _from_dict(data: dict) -> 'WikiConfig':
        known_fields = {f.name for f in dataclasses.fields(WikiConfig)}
        unknown = set(data) - known_fields
        if unknown:
            logger.warning(f'Ignoring unknown configuration keys: {sorted(unknown)}')

        values = {k: v for k, v in data.items() if k in known_fields}
        if 'article_count_method' in values:
            values['article_count_method'] = ArticleCountMethod(values['article_count_method'])
        if 'content_namespaces' in values:
            values['content_namespaces'] = frozenset(int(ns) for ns in values['content_namespaces'])
        if 'script_namespaces' in values:
            values['script_namespaces'] = frozenset(int(ns) for ns in values['script_namespaces'])
        if 'namespaces' in values:
            values['namespaces'] = {int(k): str(v or '') for k, v in values['namespaces'].items()}
        if 'namespace_aliases' in values:
            values['namespace_aliases'] = {str(k): int(v) for k, v in values['namespace_aliases'].items()}
        if 'always_known' in values:
            values['always_known'] = {
                int(ns): frozenset(name.lower() for name in names) for ns, names in values['always_known'].items()
            }
        if 'quick_edit_skips' in values:
            values['quick_edit_skips'] = frozenset(SecondaryUpdate(u) for u in values['quick_edit_skips'])
        if 'group_permissions' in values:
            values['group_permissions'] = {
                str(group): frozenset(rights or []) for group, rights in values['group_permissions'].items()
            }
        return WikiConfig(**values)

    def replace(self, **changes) -> 'WikiConfig':
        """Returns a copy of the configuration with some values changed"""
        if 'article_count_method' in changes and not isinstance(changes['article_count_method'], ArticleCountMethod):
            changes['article_count_method'] = ArticleCountMethod(changes['article_count_method'])
        return dataclasses.replace(self, **changes)

    def namespace_name(self, namespace: int) -> str:
        """Canonical name of the namespace ('' for the main namespace)"""
        return self.namespaces.get(namespace, '')

    def namespace_by_name(self, name: str) -> int | None:
        """Resolve a namespace prefix (canonical name or alias, case-insensitive)"""
        name = name.replace('_', ' ').strip().lower()
        if not name:
            return None
        for ns, ns_name in self.namespaces.items():
            if ns_name.lower() == name:
                return ns
        for alias, ns in self.namespace_aliases.items():
            if alias.lower() == name:
                return ns
        return None

    def is_content_namespace(self, namespace: int) -> bool:
        """Check if pages in the namespace may count as articles"""
        return namespace in self.content_namespaces
