"""HTTP clients for the channel-lookup and AI collaborators"""
