# Per-session state: each chat session owns its history and working memory.
# Sessions never share mutable state; writes within one session are serialised.
