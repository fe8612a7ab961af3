"""Repository scans that do not depend on a provider's default page size."""

PAGE_SIZE = 100


def scan(repository, page_size: int = PAGE_SIZE, **filters) -> list:
    """Every record matching the equality ``filters``, fetched page by page."""
    records = []
    offset = 0
    while True:
        query = repository._dao.query
        if filters:
            query = query.filter(**filters)
        result = query.offset(offset).limit(page_size).all()
        records.extend(result.items)
        if len(result.items) < page_size:
            return records
        offset += page_size


def count(repository, **filters) -> int:
    query = repository._dao.query
    if filters:
        query = query.filter(**filters)
    return query.all().total
