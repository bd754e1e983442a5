"""Process management — run a command as its own process group and kill
the whole group when it is time to restart.
"""
