'''
API endpoints for recording and browsing Transactions.
'''
from typing import Annotated, Any, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from ..database import models as db_models
from ..database.db_enums import TransactionType
from ..models import finance as finance_models
from ..services.security import verify_token_and_get_user
from ..services.transaction_service import TransactionService


class TransactionsAPI:
    def __init__(self):
        self.router = APIRouter(
            prefix="/transactions",
            tags=["Transactions"]
        )
        self._register_routes()

    def _register_routes(self):
        self.router.add_api_route(
                "",
                self.create_transaction,
                methods=["POST"],
                status_code=status.HTTP_201_CREATED,
                response_model=finance_models.TransactionRead)

        self.router.add_api_route(
                "",
                self.list_transactions,
                methods=["GET"],
                response_model=finance_models.TransactionPage)

        self.router.add_api_route(
                "/{transaction_id}",
                self.get_transaction,
                methods=["GET"],
                response_model=finance_models.TransactionRead)

    async def create_transaction(
        self,
        transaction_data: finance_models.TransactionCreate,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        transaction_service: Annotated[TransactionService, Depends(TransactionService)]
    ) -> Any:
        """
        Records a deposit or withdrawal. Withdrawals may not exceed the
        student's balance; weekly savers deposit on their scheduled day.
        """
        return await transaction_service.create_transaction(current_user, transaction_data)

    async def list_transactions(
        self,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        transaction_service: Annotated[TransactionService, Depends(TransactionService)],
        tx_type: Annotated[Optional[TransactionType], Query(alias="type")] = None,
        class_name: Annotated[Optional[str], Query(alias="class")] = None,
        page: Annotated[int, Query(ge=1)] = 1,
        per_page: Annotated[int, Query(ge=1, le=200)] = 20,
    ) -> Any:
        return await transaction_service.list_transactions(
            current_user, tx_type=tx_type, class_name=class_name, page=page, per_page=per_page
        )

    async def get_transaction(
        self,
        transaction_id: UUID,
        current_user: Annotated[db_models.Profiles, Depends(verify_token_and_get_user)],
        transaction_service: Annotated[TransactionService, Depends(TransactionService)]
    ) -> Any:
        """Single transaction with its student, as printed on a withdrawal proof."""
        return await transaction_service.get_transaction(current_user, transaction_id)

transactions_api = TransactionsAPI()
router = transactions_api.router
