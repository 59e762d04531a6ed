class BaseMongoTablesException(Exception):
    pass


class InvalidTableRequestError(BaseMongoTablesException, ValueError):
    """ Invalid input provided by the User, or an invalid server-side configuration """

    def __init__(self, err: str):
        super(InvalidTableRequestError, self).__init__('Table request error: {err}'.format(err=err))


class UnsupportedReferenceUsageError(InvalidTableRequestError):
    """ An external criteria mentioned a reference column

    References are only resolved for the columns of the table request itself,
    so additional criteria and pre-filtering criteria can't use them.
    """

    def __init__(self, column_names, where: str):
        self.column_names = sorted(column_names)
        self.where = where

        super(UnsupportedReferenceUsageError, self).__init__(
            '{where} cannot use a reference column: {names}'.format(
                where=where,
                names=', '.join(self.column_names))
        )


class ExecutionFailure(BaseMongoTablesException):
    """ Uncaught error while executing the compiled pipelines

    This class is used to augment other errors: the original one is available as `original`
    """

    def __init__(self, original: BaseException, step: str):
        self.original = original
        self.step = step

        super(ExecutionFailure, self).__init__(
            '{step} failed: {type}: {err}'.format(
                step=step,
                type=type(original).__name__,
                err=original)
        )
