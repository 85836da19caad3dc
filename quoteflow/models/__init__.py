# quoteflow/models/__init__.py
from quoteflow.models.user_models import User, RefreshToken
from quoteflow.models.activity_models import UserActivity
from quoteflow.models.customer_models import Customer
from quoteflow.models.product_models import Product
from quoteflow.models.company_models import Company
from quoteflow.models.template_models import QuoteTemplate, QuoteType
from quoteflow.models.quote_models import Quote, QuoteItem, QuoteSequence, QuoteStatus
