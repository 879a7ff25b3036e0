# Context engineering for tool-using conversations
#
#   raw history
#       |
#       v
#   MessageParser        system message + turns + orphans
#       |
#       v
#   TurnValidator        tool-call ids == tool-result ids, per exchange
#       |
#       v
#   ContextTrimmer       newest turns within the message budget, floor kept intact
#       |
#       v
#   trimmed history + removed tools  ->  WorkingMemoryTracker.remove_tools
#
# CompactionPolicy wraps the above with token accounting and tool-output pruning.
