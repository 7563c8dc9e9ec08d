from .accounts import AccountWorkflows, ClientForm, PromptResult, UserForm
from .inbox import InboxMessageForm, InboxWorkflows
from .security import SecurityWorkflows
from .tokens import TokenFilter, TokenLifecycleWorkflows, TokenSource, TokenStatus, token_preview

__all__ = [
    "AccountWorkflows",
    "ClientForm",
    "InboxMessageForm",
    "InboxWorkflows",
    "PromptResult",
    "SecurityWorkflows",
    "TokenFilter",
    "TokenLifecycleWorkflows",
    "TokenSource",
    "TokenStatus",
    "UserForm",
    "token_preview",
]
