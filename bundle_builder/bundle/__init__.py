"""Build pipeline — the three steps between a change event and a served bundle.

- Materializer: write one resource's entries into the staging tree
- Packager: compress the whole staging tree into the staging archive
- Publisher: atomically swap the staging archive into the serving path
"""
