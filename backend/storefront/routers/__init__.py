"""HTTP routes, one APIRouter per resource; mounted by ``storefront.main``."""
