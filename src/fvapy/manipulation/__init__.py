from .modify import add_sink_reactions
