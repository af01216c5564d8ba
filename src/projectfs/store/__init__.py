"""On-disk project storage — metadata sidecars and directory classification.

Layout:
    projects/
    ├── 20260218093000/
    │   ├── project.json               # {id, name, description, createdAt, updatedAt}
    │   ├── notes.txt
    │   └── data/
    │       └── samples.csv
    └── imported-by-hand/              # No project.json yet: adopted at startup

The directory tree is the source of truth. Nothing here caches; the registry
keeps the only in-memory view.
"""
