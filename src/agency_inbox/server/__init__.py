"""Agency Inbox Server

HTTP surface over the inbox workspace: the read model and every action,
backed by the process-wide services (config, backend, cache).
"""
