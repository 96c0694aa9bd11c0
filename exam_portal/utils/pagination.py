# exam_portal/utils/pagination.py
"""
Pagination and sorting of list endpoints
"""
from flask import request, current_app
from sqlalchemy import asc, desc


def get_pagination_params():
    """
    Read page parameters from the query string

    Returns:
        tuple: (page, page_size), both positive, page_size capped by MAX_PAGE_SIZE
    """
    default_size = current_app.config.get('DEFAULT_PAGE_SIZE', 10)
    max_size = current_app.config.get('MAX_PAGE_SIZE', 100)

    page = request.args.get('page', 1, type=int) or 1
    page_size = request.args.get('pageSize', default_size, type=int) or default_size

    return max(page, 1), min(max(page_size, 1), max_size)


def apply_sorting(query, sort_fields, default_field, default_order='desc'):
    """Order the query by ?sortBy=&order= restricted to the allowed fields"""
    sort_field = sort_fields.get(request.args.get('sortBy'), default_field)
    order = request.args.get('order', default_order)
    sort_expr = asc(sort_field) if order == 'asc' else desc(sort_field)
    return query.order_by(sort_expr)


def paginate(query, serialize):
    """
    Run a paginated query

    Args:
        query: Flask-SQLAlchemy query
        serialize (callable): Row -> dict

    Returns:
        dict: {data, total, page, pageSize, totalPages}
    """
    page, page_size = get_pagination_params()
    pagination = query.paginate(page=page, per_page=page_size, error_out=False)
    return {
        'data': [serialize(item) for item in pagination.items],
        'total': pagination.total,
        'page': page,
        'pageSize': page_size,
        'totalPages': pagination.pages,
    }
